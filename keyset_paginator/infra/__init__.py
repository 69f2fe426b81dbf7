"""Infrastructure helpers shared by the pagination core."""
