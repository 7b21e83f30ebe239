"""Course image uploads to Firebase Storage."""
