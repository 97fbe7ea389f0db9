"""Tournament back office: lifecycle, registration admission and brackets."""
