"""
University application: courses, sections and videos gated by tenant role.
"""
