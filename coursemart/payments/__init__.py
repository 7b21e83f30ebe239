"""Course purchases through the Razorpay gateway."""
