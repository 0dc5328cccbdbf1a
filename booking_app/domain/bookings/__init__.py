"""Bookings domain - technician slot bookings, customers and installation types"""
