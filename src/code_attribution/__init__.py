"""
Code Attribution - authorship and contribution analysis for git repositories.

Combines two independent sources of evidence: live commit history (who wrote
which commits, how many lines they added and removed) and current-state line
ownership from git blame (who last touched each surviving line). Remote
history is fetched from the hosted API with rate-limit aware pagination and
streamed progress reporting.
"""

__version__ = "0.4.0"
