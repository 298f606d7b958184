# pricecatalog/__init__.py
