"""
Realtime package for pushing dispatch events to connected clients.

Couriers subscribe to their personal ``courier_<id>`` group and admins to
``dispatch_admins``; the websocket consumers live with the client apps.

Usage:
    from realtime.notifications import ChannelLayerNotifier, get_notifier, safe_notify
"""
