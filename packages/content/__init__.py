"""Blog content served from the headless CMS."""
