"""Technicians domain"""
