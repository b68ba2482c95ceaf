"""HTTP surface for interview turns and reports."""
