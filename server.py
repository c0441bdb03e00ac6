#!/usr/bin/env python3
"""
FixedPronos payments service - Entry Point
Точка входа: webhook MoneyFusion, платежи и подписки
"""

from fixedpronos.main import main
import asyncio

if __name__ == "__main__":
    asyncio.run(main())
