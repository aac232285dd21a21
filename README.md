# groupbot

A library of the pieces a group chat bot is made of: parsing, scheduling,
storage and formatting. You wire its functions into whatever bot framework
you use.

## What is inside

| Module | Purpose |
| --- | --- |
| `groupbot.timerspec` | Reminder specifications written with Chinese date words ("12月周六的16点30分"), packed into one integer, with a stable id per group (`Timer`, `get_filled_timer`, `get_filled_cron_timer`) |
| `groupbot.wake` | When a date reminder should next wake up (`next_wake_time`), and whether it fires at a given moment (`should_fire`) |
| `groupbot.clock` | `Clock`, which keeps reminders in SQLite and runs them on threads, and `CronSchedule` for five-field cron expressions, `@daily`-style descriptors and `@every 1h` |
| `groupbot.midi` | A small score notation turned into MIDI files, WAV rendering through `timidity`, and the ear-training game `EarTraining` |
| `groupbot.manager` | Group management helpers: ban lengths, welcome/farewell templates, join verification through a gist, an arithmetic quiz, feature flags, and `ManagerStore` |
| `groupbot.holiday` | Countdowns to the weekend and to holidays (`Holiday`, `moyu_message`) and download of a daily calendar image |
| `groupbot.github` | Repository search and a text summary of the top result |
| `groupbot.nsfw` | Turning image classification scores (`Picture`) into a short verdict |
| `groupbot.textapis` | Abbreviation guessing and the "绝绝子" phrase generator |
| `groupbot.hearthstone` | Card search and deck-code images |
| `groupbot.hyaku` | The Ogura Hyakunin Isshu, one hundred poems loaded from CSV (`Poem`, `load_poems`) |
| `groupbot.jandan` | Picture links gathered page by page from a picture board into `PictureStore` |
| `groupbot.nativesetu` | A local picture library, one class per folder, indexed by difference hash (`SetuLibrary`) |
| `groupbot.nativewife` | Per-group picture folders with a pick that stays the same for a user all day |
| `groupbot.pixiv_search` | Keyword illustration search and its caption |
| `groupbot.lolicon` | A bounded, refillable queue of random image links (`ImageQueue`) |
| `groupbot.omikuji` | Temple fortune slips: a daily number per user, its images and its text (`KujiStore`) |

## Reminders

A reminder is described by the pieces a message such as
`在12月周六的16点30分时提醒大家开会` is split into: month, day or weekday,
hour, minute, an optional picture link (prefixed with 用) and the alert text.

```python
from datetime import datetime

from groupbot.timerspec import get_filled_cron_timer, get_filled_timer
from groupbot.wake import next_wake_time

timer = get_filled_timer(["", "12", "周六", "16", "30", "", "meeting"], 0, 123456, False)
if timer.enabled():
    print(timer.info(), hex(timer.timer_id()))
    print(next_wake_time(timer, datetime.now()))

cron_timer = get_filled_cron_timer("0 10 * * *", "stand-up", "", 0, 123456)
```

An invalid field leaves the timer disabled with the reason in `timer.alert`.

`Clock(db_path, sender)` loads the stored reminders and starts them;
`sender(self_id, group_id, segments)` is called whenever one fires.
`register_timer`, `cancel_timer` and `list_timers` manage the reminders of
each group, and `close` stops the threads and the database. It can be used
as a context manager.

## MIDI

Notes are letters `A`–`G` with an optional `b` or `#`, an optional octave
number (5 when left out) and an optional length after `<` (`<1` is a half
note, `<-1` an eighth). `R` is a rest. Spaces are ignored.

```python
from groupbot.midi import parse_note, write_midi

write_midi("twinkle.mid", "CCGGAAGR FFEEDDCR")
print(parse_note("C#6"))  # 73
```

A character outside the notation raises `ScoreParseError`. `str_to_music`
also renders a WAV file next to the MIDI file, which needs the `timidity`
program on the `PATH`.

`EarTraining(team=False)` plays five rounds: `submit(user_id, note)` judges an
answer, keeps `scores` and moves to the next note after a correct answer or
after too many mistakes (3 alone, 10 in a team).

## Group management

```python
from groupbot.manager import ManagerStore, ban_minutes, welcome_to_cq

store = ManagerStore("manager.db")
store.set_welcome(123456, "欢迎 {at} 加入 {groupname}!")
text = welcome_to_cq(store.welcome(123456), 10001, "Alice", 123456, "Example Group")
print(ban_minutes(2, "小时", False))  # 120
store.close()
```

`check_new_user` accepts a join request when the gist named in the answer
holds a unix timestamp less than ten minutes old, and records the user in the
store.

## What the package does not do

- It does not connect to any chat service, match incoming messages to
  commands or send replies; that is left to the bot framework you use.
- It does not download its data sets: `load_poems` reads a poem CSV you
  provide, and `KujiStore` reads slip texts from a database you fill.
- It does not classify images; `groupbot.nsfw` only turns scores you already
  have into a verdict.
- It does not generate pictures from avatars.

## Tests

The test suite uses pytest and responses, listed under the `test` extra:

```
pip install -e ".[test]"
pytest
```