# gator

`gator` is a small command-line RSS aggregator. Users register by name,
add the feeds they care about, follow feeds that others have added, and let
the aggregator fetch new posts on a fixed interval. Fetched posts can then
be browsed from the terminal, newest first.

Everything is kept in a local SQLite database; `gator` needs nothing
beyond the Python standard library.

## Installation

```
pip install .
```

This installs the `gator` command.

## Configuration

`gator` reads its settings from `.gatorconfig.json` in your home directory:

```json
{
  "db_url": "gator.db"
}
```

`db_url` names the SQLite database that holds users, feeds, follows and
posts. It may be:

- a file path, such as `gator.db` or `/home/me/gator.db`;
- `:memory:` (nothing survives the command);
- a `file:` URI, passed to SQLite as a URI;
- `sqlite:///` followed by a path (`sqlite://` alone is an in-memory database).

Any other `scheme://` URL is rejected. The tables are created the first
time the database is opened.

The `current_user_name` key is written by `gator` itself when you register
or log in; you do not need to set it by hand.

## Usage

```
gator <command> [args...]
```

An unknown command prints `command not found`. On any error `gator`
prints a message to standard error and exits with status 1.

### Users

| Command | What it does |
| --- | --- |
| `gator register <name>` | Create a user and make it the current user |
| `gator login <name>` | Switch the current user to an existing user |
| `gator users` | List all users, marking the current one with `(current)` |
| `gator reset` | Delete every user, together with their feeds, follows and posts |

### Feeds

These commands, except `feeds`, act as the current user, who must exist.

| Command | What it does |
| --- | --- |
| `gator addfeed <name> <url>` | Add a feed as the current user and follow it |
| `gator feeds` | List every feed with the name of the user who added it |
| `gator follow <url>` | Follow an already added feed |
| `gator following` | List the feeds the current user follows |
| `gator unfollow <url>` | Stop following a feed |

A feed URL can be added only once, and a user can follow a given feed only
once.

### Collecting and reading posts

```
gator agg 1m
```

`agg` runs until it is interrupted (it then exits with status 130). On
every tick it picks the one feed that was fetched longest ago (feeds never
fetched come first), marks it fetched, downloads it and stores its items as
posts. A post whose URL is already stored is skipped. Publication dates in
the form `Mon, 02 Jan 2006 15:04:05 -0700` are kept; other dates are stored
as unknown.

The interval uses duration syntax: a number followed by a unit, repeated,
such as `30s`, `1m`, `1h30m`, `1.5h` or `500ms`. The units are `ns`, `us`
(or `µs`), `ms`, `s`, `m` and `h`. The interval must be positive.

```
gator browse 5
```

`browse` prints the posts from the feeds the current user follows, newest
first; posts without a known publication date come before the others.
Without an argument it shows two posts. The argument must be a whole
number and must not be negative.

## Example session

```
gator register alice
gator addfeed "Example Blog" https://example.com/feed.xml
gator agg 30s        # stop with Ctrl-C after a fetch or two
gator browse 10
```

## Using it as a library

The pieces behind the command are importable:

- `gator.config` reads and writes the configuration: `read(path=None)`
  returns a `Config`, whose `set_user(name)` saves the file.
- `gator.database` holds the storage: `connect(url)` returns a `Queries`
  object (usable as a context manager, with a `transaction()` context
  manager for grouping statements); `create_schema(connection)` creates the
  tables on an existing `sqlite3` connection. Failures raise
  `DatabaseError`, with `NoRowsError` and `UniqueViolationError` as
  subclasses.
- `gator.models` holds the records returned by the queries (`User`, `Feed`,
  `FeedFollow`, `Post`, `FeedFollowRow`, `FeedSummary`, `PostWithFeed`).
- `gator.rss` parses and downloads feeds: `parse_feed(data)` and
  `fetch_feed(url, timeout=10.0)` return an `RSSFeed` of `RSSItem`s and
  raise `FeedParseError` for malformed XML.
- `gator.aggregate` has `parse_duration`, `parse_pub_date`, `scrape_feed`
  and `scrape_feeds`; the last two take an optional fetch function in place
  of `fetch_feed`.
- `gator.cli.build_commands()` returns the command table used by `gator`,
  and `gator.cli.main(argv)` runs it.

## What it does not do

- Only RSS documents with a `<channel>` of `<item>` elements are read; an
  Atom feed, or any document without a `channel`, yields no posts.
- Storage is SQLite only; there is no support for a database server.
- `agg` fetches a single feed per tick and runs in the foreground; there
  is no background service.

## Running the tests

```
pip install ".[test]"
pytest
```