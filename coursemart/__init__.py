"""CourseMart API - course selling platform backend."""
