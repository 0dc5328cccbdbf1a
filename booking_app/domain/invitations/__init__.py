"""Invitations domain - invite-only onboarding"""
