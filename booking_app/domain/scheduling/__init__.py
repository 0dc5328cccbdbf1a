"""Scheduling domain - technician availability"""
