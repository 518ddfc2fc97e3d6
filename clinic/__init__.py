"""Clinic application for the hospital administration backend.

Models, services, serializers and views for patients, appointments,
prescriptions, inventory, billing and staff administration.
"""
