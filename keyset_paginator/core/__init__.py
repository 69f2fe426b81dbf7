"""Pagination core: ordering, cursors, paginators, settings and errors."""
