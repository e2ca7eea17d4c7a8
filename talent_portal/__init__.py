"""
Talent Portal
Multi-tenant recruitment backend: job portal, applicant tracking,
interview scheduling and recruitment analytics.

Architecture:
- MongoDB: every record (holdings, RQs, candidates, users) as loose documents
- OpenAI-compatible LLM: CV matching, CUL validation, JD writing
- Resend: transactional email
- Google / Microsoft: calendar OAuth
"""

__version__ = "1.0.0"
