"""Relational store: engine, tables and row access."""
