"""Reminder templates, delivery logs and the automation HTTP surface."""
