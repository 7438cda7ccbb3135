# scanpilot

Bookkeeping and pacing for directory and content-discovery scanners.

scanpilot tracks the scans that a scanner runs. For each scan it records the URL, the
scan's state and the number of errors, 403s and 429s it has seen. It also decides how
fast the scanner should send requests. It is a library only. You plug it into your own
scanner.

## Modules

### `scanpilot.scan`

This module holds one scan and the types that describe it.

- `FeroxScan` is a single scan. It holds:
  - its id, a random hex UUID;
  - its URL, type, order, status and expected number of requests;
  - counters for 403s, 429s and errors, read back with `num_errors(trigger)`;
  - an optional asyncio task.
- Methods on `FeroxScan`:
  - `abort()` cancels the task and marks the scan cancelled.
  - `join()` waits for the task and then marks the scan complete.
  - `finish()` marks the scan complete and finishes its progress bar.
  - `is_active()` is true for a directory scan that is running or not yet started.
  - `requests_per_second()` divides the progress-bar position by the whole seconds
    since the scan was created.
  - `to_dict()` and `FeroxScan.from_dict()` convert the scan to and from the state-file
    form, which has the keys `id`, `url`, `scan_type`, `status` and `num_requests`.
    Unknown or malformed values fall back to the defaults.
- Enums: `ScanType`, `ScanStatus`, `ScanOrder` and `OutputLevel`.
- `ProgressBar` is a plain counter of position against length. It draws nothing.

### `scanpilot.scan_container`

`FeroxScans` is the ordered collection of scans.

- `insert()` refuses a URL that is already present.
- `add_directory_scan()`, `add_file_scan()` and `add_scan()` create scans.
  - Every new scan gets the length set with `set_bar_length()`.
  - Directory scans also get a progress bar.
- `get_scan_by_url()` looks up a scan by its exact URL.
- `get_base_scan_by_url()` returns the deepest known scan whose URL is a directory
  prefix of the given URL.
- `increment_status_code()` and `increment_error()` count a 403, a 429 or an error
  against that base scan.
- `add_serialized_scans(filename)` loads the `"scans"` list from a JSON state file.
- `to_json()` writes the scan list as compact JSON.
- `has_active_scans()` and `get_active_scans()` report on active scans.
- The module-level `set_pause()` and `is_paused()` control a pause flag shared by the
  whole process.
- `pause(get_user_input)` waits until the flag is cleared.
  - The first caller can show the interactive menu.
  - `display_scans()`, `cancel_scans()` and `interactive_menu()` list the directory
    scans, then cancel the ones the user picks.
  - `pause()` returns the number of requests skipped by those cancellations.

### `scanpilot.menu`

`Menu` writes to an output stream, `sys.stderr` by default. It reads from an input
stream, `sys.stdin` by default.

- `split_to_nums("1-4,8,9-13")` returns the unique, non-zero indexes.
  - Ranges are inclusive.
  - An invalid range is reported and skipped.
- `get_scans_from_user()` reads one line and also reports whether `-f` ("skip
  confirmation") was given.
- `confirm_cancellation(url)` asks a yes/no question and returns the answer character.
- Colour and screen clearing are used only when the output is a terminal.

### `scanpilot.response_container`

`FeroxResponses` is a thread-safe list of the responses already seen.

- Responses can be mappings or objects.
- `contains()` compares responses by their `url`.
- `to_json()` writes the list as compact JSON. It uses each response's `to_dict()`
  where the response has one.

### `scanpilot.limit_heap` and `scanpilot.policy_data`

`LimitHeap` is a complete binary tree of 255 requests-per-second values, built from a
starting rate.

- The left child of a node raises the rate.
- The right child lowers it.

`PolicyData` walks that tree:

- `set_reqs_sec()` builds the tree and sets the limit to half the starting rate.
- `adjust_up(streak)` raises the limit. A streak above 2 climbs towards the root
  instead. When the root is reached, `remove_limit` is set.
- `adjust_down()` lowers the limit.

The module also defines the `PolicyTrigger` enum (`STATUS_403`, `STATUS_429`,
`ERRORS`) and the `RequesterPolicy` enum (`DEFAULT`, `AUTO_TUNE`, `AUTO_BAIL`).

### `scanpilot.rate_limiter`

`LeakyBucket` is an asyncio token bucket.

- `acquire_one()` waits for a token.
- `build_a_bucket(limit)` sets a bucket up for a given requests-per-second limit:
  - tokens refill every 0.1 s, or every second when the refill is a single token;
  - the initial burst is half the limit.

### `scanpilot.requester`

`Requester` enforces a scan's policy.

- `should_enforce_policy(requests)` takes the overall request count. It returns the
  trigger that has been met, or `None`. The triggers are:
  - errors have reached half the thread count (at least 25);
  - 403s are at least 90% of the scan's requests;
  - 429s are at least 30% of the scan's requests.
  
  No trigger is checked during a cool-down, or before `max(threads, 50)` requests.
- `tune(trigger)` seeds the rate tree from the scan's current speed and adjusts the
  rate limiter. It then cools down for half the timeout.
- `bail(trigger)` cancels an active scan and returns the number of requests skipped.
- `limit()` waits on the current rate limiter.

## Example

```python
from scanpilot.scan import ScanOrder, OutputLevel
from scanpilot.scan_container import FeroxScans
from scanpilot.policy_data import PolicyData, PolicyTrigger, RequesterPolicy

scans = FeroxScans(OutputLevel.DEFAULT)
scans.set_bar_length(1000)
added, scan = scans.add_directory_scan("http://localhost/admin", ScanOrder.INITIAL)

scans.increment_status_code("http://localhost/admin/login.php", 429)
print(scan.num_errors(PolicyTrigger.STATUS_429))  # 1

policy = PolicyData(RequesterPolicy.AUTO_TUNE, 7)
policy.set_reqs_sec(400)
print(policy.get_limit())  # 200
policy.adjust_up(0)
print(policy.get_limit())  # 300
```

## What it does not do

- It sends no HTTP requests and reads no wordlists. Making requests and reporting the
  results are left to the caller. The caller passes in the overall request count and
  records the 403s, 429s and errors it sees.
- It has no command-line program.
- It draws no progress bars. `ProgressBar` only counts.
- It writes no state file. Scans and responses can be turned into JSON with
  `to_json()`, and scans can be loaded back with `add_serialized_scans()`. Saving the
  whole scanner state, including its configuration, is up to the caller.
- It does not enforce a scan time limit.

## Installation

```
pip install .
```

Tests:

```
pip install .[test]
pytest
```