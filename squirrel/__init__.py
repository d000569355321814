"""
squirrel – watch a course on Acorn and grab a seat as soon as one opens up.
"""
