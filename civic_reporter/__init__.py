"""Civic issue reporting API: citizen intake, automated triage and resolution tracking."""
