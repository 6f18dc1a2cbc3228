"""
Collaborators at the edge of the call simulator: recording storage, call
history persistence and user notifications.

Usage examples:
```python
from callsim.services import CallHistory, HttpCallRecordSink, HttpObjectStorage, format_duration

history = CallHistory(HttpCallRecordSink("https://db.example.com/rest/v1/calls", api_key))
for record in history.records(search="ava"):
    print(record.agentName, format_duration(record.duration))

storage = HttpObjectStorage("https://db.example.com", api_key, bucket="recordings")
url = await storage.upload(recording, "call_1700000000000")
```
"""

from callsim.services.history import CallHistory, HttpCallRecordSink, format_duration
from callsim.services.notifications import LoggingNotifier, Severity
from callsim.services.storage import HttpObjectStorage, LocalRecordingStore
