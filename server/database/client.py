"""Supabase database client"""
from typing import Optional
from supabase import acreate_client, create_client, AsyncClient, Client
from config.settings import settings
import logging

logger = logging.getLogger(__name__)

_supabase_client: Optional[Client] = None
_realtime_client: Optional[AsyncClient] = None


def init_supabase() -> Client:
    """Initialize Supabase client used for table queries"""
    global _supabase_client

    if _supabase_client is None:
        logger.info("Initializing Supabase client...")
        _supabase_client = create_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_KEY
        )
        logger.info("✓ Supabase client initialized")

    return _supabase_client


def get_supabase() -> Client:
    """Get Supabase client instance"""
    if _supabase_client is None:
        return init_supabase()
    return _supabase_client


async def init_realtime() -> AsyncClient:
    """Initialize the async Supabase client that owns Realtime channels"""
    global _realtime_client

    if _realtime_client is None:
        logger.info("Initializing Supabase Realtime client...")
        _realtime_client = await acreate_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_KEY
        )
        logger.info("✓ Supabase Realtime client initialized")

    return _realtime_client


def get_realtime() -> AsyncClient:
    """Get Realtime client instance"""
    if _realtime_client is None:
        raise RuntimeError("Realtime client not initialized. Call init_realtime() first.")
    return _realtime_client


async def close_realtime() -> None:
    """Drop every open channel and forget the client"""
    global _realtime_client
    if _realtime_client is not None:
        await _realtime_client.remove_all_channels()
        _realtime_client = None
        logger.info("Supabase Realtime channels removed")
