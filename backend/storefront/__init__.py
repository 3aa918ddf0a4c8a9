"""Storefront backend: catalog, checkout, consulting bookings and Stripe reconciliation"""
