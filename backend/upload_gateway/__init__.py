"""
Upload gateway: multipart file uploads validated by declared type, size and
count, stored to disk under collision-resistant names, and served, described
or deleted by name afterwards.
"""
