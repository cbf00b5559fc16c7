"""Currency handling package: conversion and the base currency rule."""

from expense_ledger.currency.converter import CurrencyConverter
from expense_ledger.currency.policy import BaseCurrencyPolicy

__all__ = ["BaseCurrencyPolicy", "CurrencyConverter"]
