"""Declarative base for the gateway tables."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
