# Supabase tables: user_two_factor, trusted_devices, rate_limits
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in two_factor.py,
# trusted_devices.py and rate_limiter.py

"""
Expected Supabase table structure:

user_two_factor:
- id: uuid (primary key)
- user_id: uuid (foreign key to auth.users.id, not null, unique)
- secret: text (not null) - encrypted envelope {"salt", "iv", "data"} of the TOTP seed
- backup_codes: text (not null) - encrypted envelope of a JSON list of backup codes
- enabled: boolean (not null, default: false) - true after the first TOTP verification
- last_used_code: text (nullable) - sha256 digest of the last accepted code
- last_verified: timestamptz (nullable)
- setup_ip: text (nullable)
- setup_user_agent: text (nullable)
- verification_ip: text (nullable)
- verification_user_agent: text (nullable)
- created_at: timestamptz (default: now())
- updated_at: timestamptz (nullable)

trusted_devices:
- id: uuid (primary key)
- user_id: uuid (foreign key to auth.users.id, not null)
- device_fingerprint: text (not null)
- name: text (not null)
- user_agent: text (nullable)
- ip_address: text (nullable)
- expires_at: timestamptz (not null) - 30 days after the last trust/refresh
- last_used: timestamptz (not null)
- created_at: timestamptz (default: now())
- unique constraint on (user_id, device_fingerprint)

rate_limits:
- id: uuid (primary key)
- identifier: text (not null) - usually the user id
- action: text (not null) - 2fa_setup | 2fa_verify | 2fa_disable | trust_device
- ip_address: text (nullable)
- user_agent: text (nullable)
- created_at: timestamptz (default: now())
- index on (identifier, action, created_at)
"""
