"""
Pydantic schemas: typed entity records (entities.py) and the request and
response bodies of each route group.
"""
