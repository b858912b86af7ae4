"""
Influencer Platform Backend

Campaign application and view-based earnings engine:
- Creator applications with content links and brand review
- Content link selection and view counter tracking
- Periodic view refresh from social platforms
- CPM / fixed earnings computation
"""

__version__ = "0.1.0"
__author__ = "Influencer Platform Team"
