"""hanko: manage Git allowed signers.

Resolves the SSH signing keys that configured signers registered on GitHub and
GitLab and writes them to an OpenSSH `allowed_signers` file.
"""

__version__ = "0.2.1"

USER_AGENT = f"hanko/{__version__}"
