"""
Shared Module

Code shared by the API and the worker: models, repositories, services,
adapters and utilities.
"""
