"""Real-time infrastructure — in-process broadcaster + Server-Sent Events.

Learn: Events flow like this:
1. A handler commits its write, then calls Broadcaster.broadcast(user_id, event)
2. The broadcaster writes one SSE frame to every open stream of that user
3. Each stream's endpoint generator forwards frames to the HTTP response

Delivery is best-effort and at-most-once: nobody connected, nothing sent.
With COLLAB_REALTIME_REDIS_RELAY=true, step 2 goes through Redis pub/sub
so every worker process delivers to its own local streams.
"""
