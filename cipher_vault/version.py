"""Cipher Vault Meta information.
   Cipher Vault keeps encrypted service credentials in per-user vaults,
   synchronized against a remote document store.
"""
__title__ = 'cipher_vault'
__description__ = (
   'Cipher Vault keeps encrypted service credentials in per-user vaults '
   'synchronized against a remote document store.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2026 Cipher Vault developers'
__author__ = 'Cipher Vault developers'
__author_email__ = 'dev@cipher-vault.invalid'
__license__ = 'Apache-2.0'
