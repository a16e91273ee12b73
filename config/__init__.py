# caduceus/config/__init__.py
