# Supabase Auth
# Users, sessions and passwords live in Supabase's auth.users table.
# Two-factor state and trusted devices are separate tables, see
# app/modules/security/models.py

"""
Supabase Auth calls used by AuthService:
- auth.sign_up() - Register new users (after validate_email / validate_password)
- auth.sign_in_with_password() - Authenticate users
- auth.get_user() - Resolve the current user from the bearer token
- auth.sign_out() - Logout users

User metadata (full_name) is stored in user_metadata during registration.
"""
