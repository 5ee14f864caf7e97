"""
Fire-safety reporting service.

A FastAPI application for property registration, admin review, AI floor
plan analysis, reporting and blog push notifications, with pluggable
storage, database and event-bus adapters.
"""
