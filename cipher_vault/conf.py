"""Cipher Vault constants and environment variable names."""

# Environment
VAULT_KEY_ENV = "CIPHER_VAULT_KEY"
VAULT_BACKEND_ENV = "CIPHER_VAULT_BACKEND"
EXPORT_ITERATIONS_ENV = "CIPHER_VAULT_EXPORT_ITERATIONS"
DEFAULT_VAULT_ENV = "CIPHER_VAULT_DEFAULT_VAULT"

# Defaults
DEFAULT_VAULT_NAME = "Personal"
DEFAULT_CIPHER_BACKEND = "aesgcm"
EXPORT_KDF_ITERATIONS = 600_000  # OWASP 2023 for PBKDF2-SHA256

# Data model limits
MAX_HISTORY_ENTRIES = 10
MIN_EXPORT_PASSPHRASE = 8

# Export
EXPORT_FILENAME = "cipher-vault-export-{date}.{fmt}.enc"
EXPORT_CSV_HEADER = (
    "serviceName,url,username,password,notes,folder,tags,"
    "isFavorite,createdAt,updatedAt"
)

# Secret generator
GENERATOR_DEFAULT_LENGTH = 16
GENERATOR_MIN_LENGTH = 8
GENERATOR_MAX_LENGTH = 50
AMBIGUOUS_CHARS = "{}[]()/\\'\"`~,;.<>"
