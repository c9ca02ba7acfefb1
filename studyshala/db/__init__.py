"""
Database module for StudyShala

Contains seed data for local development.
"""
from studyshala.db.seed_data import seed_all, clear_all

__all__ = ["seed_all", "clear_all"]
