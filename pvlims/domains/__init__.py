# pvlims/domains/__init__.py
