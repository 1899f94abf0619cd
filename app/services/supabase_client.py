"""
Supabase client factory.
Created once in app.dependencies and injected into every service that needs
the `reports` / `whatsapp_messages` tables or the image bucket.
"""

import os
import logging
from supabase import create_client, Client
from typing import Optional

logger = logging.getLogger(__name__)


def create_supabase() -> Optional[Client]:
    """Builds the Supabase client from env, or None when credentials are missing."""
    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_TOKEN")

    if not supabase_url or not supabase_key:
        logger.warning("SUPABASE_URL or SUPABASE_TOKEN not found in env")
        return None

    return create_client(supabase_url, supabase_key)
