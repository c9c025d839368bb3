"""Grow a Garden stock notifier.

Polls the upstream game APIs, detects stock/weather/merchant changes and fans
the resulting notifications out to every configured Discord server.
"""
