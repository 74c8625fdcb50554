"""
Academics app: the tenant hierarchy below a school.

Classes, disciplines, teachers, students and teacher/class/discipline
associations, with the validators that keep them consistent.
"""
