"""
Handlers package - Contains the kopf event handlers for Nexus resources.

- nexus.py: Nexus instance lifecycle (create, resume, update)
"""
