"""Misoto, a place to share recipes.

Recipes are written by hand or pulled out of photos, links and web pages.
Extraction leans on a hosted completion endpoint, with an offline parser
for the cheap path:

- `extraction` runs the flows and fills a `forms.RecipeForm`.
- `services`, `friends`, `feedback` and `auth` sit on the document store.
- `app` is the HTTP surface, `__main__` the command line.
"""
