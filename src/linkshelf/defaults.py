"""Bundled starter document, used to initialize an empty store."""

from linkshelf.models.node import NavigationTree

DEFAULT_PROFILE = {
    "name": "My Links",
    "subtitle": "A personal link directory",
    "avatar": "",
    "description": "Frequently used websites, organized by category",
}

_DEFAULT_DOCUMENT = {
    "profile": DEFAULT_PROFILE,
    "categories": [
        {
            "id": "dev-tools",
            "title": "Dev Tools",
            "icon": "💻",
            "sites": [
                {
                    "title": "GitHub",
                    "description": "Code hosting platform",
                    "url": "https://github.com",
                    "icon": "🐙",
                },
                {
                    "title": "Stack Overflow",
                    "description": "Programming Q&A",
                    "url": "https://stackoverflow.com",
                    "icon": "🔧",
                },
                {
                    "title": "CodePen",
                    "description": "Front-end playground",
                    "url": "https://codepen.io",
                    "icon": "🎨",
                },
                {
                    "title": "MDN",
                    "description": "Web platform documentation",
                    "url": "https://developer.mozilla.org",
                    "icon": "📚",
                },
            ],
            "children": [],
        },
        # Reserved, always last.
        {"id": "uncategorized", "title": "Uncategorized", "icon": "📁", "sites": [], "children": []},
    ],
}


def default_tree() -> NavigationTree:
    return NavigationTree.from_dict(_DEFAULT_DOCUMENT)
