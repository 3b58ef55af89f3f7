"""
Project slugs.

A slug is the join key between the database record, the project directory,
the compose project (and so every container name) and the routing config
file. It therefore has to be valid as all of them at once: lowercase ASCII
letters, digits and single hyphens, starting and ending with a letter or digit.

    "Demo"            -> "demo"
    "My Awesome App!" -> "my-awesome-app"
    second "Demo"     -> "demo-k3x8n2"
"""

import re
from nanoid import generate

# Slugs that would clash with files the panel itself owns (panel.yml)
RESERVED_SLUGS = {"panel", "supapanel"}

SUFFIX_ALPHABET = '0123456789abcdefghijklmnopqrstuvwxyz'

# Before the "-<suffix>" of a colliding name is appended
MAX_BASE_LENGTH = 50

FALLBACK_SLUG = 'project'


def slugify(text: str, max_length: int = MAX_BASE_LENGTH) -> str:
    """Lowercase, collapse anything that is not [a-z0-9] into single hyphens, trim."""
    slug = re.sub(r'[^a-z0-9]+', '-', text.lower()).strip('-')
    slug = slug[:max_length].rstrip('-')
    return slug or FALLBACK_SLUG


def random_suffix(length: int = 6) -> str:
    """Short random lowercase suffix (36^6 combinations by default)."""
    return generate(SUFFIX_ALPHABET, length)


def candidate_slugs(project_name: str, suffix_length: int = 6):
    """
    Yield slug candidates for a project name: the plain slug, then suffixed ones.

    Reserved slugs are never yielded bare. The caller stops iterating once a
    candidate is free.
    """
    base_slug = slugify(project_name)
    if base_slug not in RESERVED_SLUGS:
        yield base_slug
    while True:
        yield f"{base_slug}-{random_suffix(suffix_length)}"
