"""
Reply scripts sent to members and instructors.

All user-facing wording lives here so the conversation logic stays language-agnostic.
"""

# ---------- Sender gate ----------
UNKNOWN_SENDER = (
    "Ten numer nie jest przypisany do żadnego użytkownika. Jeśli chcesz dołączyć do zajęć, "
    "skontaktuj się ze studiem przez formularz kontaktowy na stronie {contact_url}"
)

INACTIVE_MEMBER = "Dziękujemy za wiadomość."

GREETING = "Cześć {name}!"

# ---------- Main menu ----------
MAIN_MENU_HEADER = "Menu"
MAIN_MENU_BODY = "W czym mogę pomóc? Wybierz opcję z listy albo wpisz jej numer."
MAIN_MENU_BUTTON = "Pokaż opcje"
MAIN_MENU_ROWS = (
    ("absence", "1. Zgłoś nieobecność", "Zwolnij miejsce na swoich zajęciach"),
    ("makeup", "2. Odrób zajęcia", "Zapisz się na wolne miejsce"),
    ("credits", "3. Moje odrabiania", "Sprawdź liczbę zajęć do odrobienia"),
    ("end", "4. Zakończ", ""),
)
GOODBYE = "Dziękujemy, do zobaczenia na zajęciach!"

# ---------- Absences ----------
UPCOMING_HEADER = "Wybierz zajęcia, które chcesz zwolnić"
UPCOMING_BODY = 'Wybierz termin zajęć, dla których chcesz zgłosić nieobecność, lub wybierz "Inny termin".'
UPCOMING_FOOTER = 'Dla "Inny termin" wpisz później wiadomość "Zwalniam dd/mm".'
UPCOMING_BUTTON = "Wybierz termin"
UPCOMING_SECTION = "Twoje zajęcia"
OTHER_SECTION = "Inne opcje"
OTHER_DATE_TITLE = "Inny termin"
OTHER_DATE_DESCRIPTION = "Podam inny termin w wiadomości"
NO_UPCOMING = "W najbliższych 14 dniach nie masz zaplanowanych zajęć."

OTHER_DATE_PROMPT = 'Napisz proszę wiadomość w formacie: "Zwalniam dd/mm" dla innego terminu.'

ABSENCE_CONFIRMED = "✔️ Nieobecność {day} ({time}, {group}) została zgłoszona, miejsce zwolnione."
ABSENCE_MORE_QUESTION = "Czy chcesz zgłosić kolejną nieobecność?"
ABSENCE_MORE_YES = "Tak"
ABSENCE_MORE_NO = "Nie"
ABSENCE_DONE = "Dziękujemy, nieobecności zostały zapisane."

ALREADY_ABSENT = "Na te zajęcia ({day}) jest już zgłoszona nieobecność."
PAST_DATE = "Termin {day} już minął. Nieobecność można zgłosić tylko na przyszłe zajęcia."
NO_CLASS_THAT_DAY = "Nie znalazłem Twoich zajęć w tym terminie. Wybierz proszę zajęcia z listy."
AMBIGUOUS_DAY = (
    "Tego dnia masz więcej niż jedne zajęcia. Wybierz je z listy albo podaj godzinę, "
    'np. "Zwalniam {day} 18:00".'
)
INVALID_DATE = 'Nie rozpoznałem daty. Użyj formatu "Zwalniam dd/mm", np. "Zwalniam 12/11".'

# ---------- Make-up ----------
MAKEUP_HEADER = "Wolne miejsca"
MAKEUP_BODY = "Masz do odrobienia: {balance}. Wybierz zajęcia, na które chcesz się zapisać."
MAKEUP_BUTTON = "Wybierz zajęcia"
MAKEUP_SECTION = "Dostępne terminy"
MAKEUP_ROW_DESCRIPTION = "Wolne miejsca: {count}"
NO_MAKEUP_SLOTS = "W najbliższych 14 dniach nie ma wolnych miejsc do odrobienia. Zajrzyj tu później."
MAKEUP_CONFIRMED = "✔️ Zapisano Cię na odrabianie: {day} {time}, {group}. Pozostało do odrobienia: {balance}."
NO_CREDIT = "Nie masz obecnie zajęć do odrobienia."
SLOT_UNAVAILABLE = "To miejsce jest już zajęte. Wybierz proszę inny termin."

CREDITS_BALANCE = "Liczba zajęć do odrobienia: {balance}."

# ---------- Instructor panel ----------
INSTRUCTOR_PANEL_HEADER = "Panel instruktora"
INSTRUCTOR_PANEL_BODY = "Cześć {name}! Co chcesz sprawdzić?"
INSTRUCTOR_PANEL_BUTTON = "Otwórz panel"
INSTRUCTOR_PANEL_ROWS = (
    ("today", "Lista na dziś", "Obecni, nieobecni i odrabiający"),
    ("tomorrow", "Lista na jutro", "Obecni, nieobecni i odrabiający"),
    ("absences", "Ostatnie nieobecności", "Zgłoszenia na najbliższe 7 dni"),
    ("addslot", "Dodaj miejsce", "Otwórz dodatkowe miejsce na zajęciach"),
    ("stats", "Statystyki", "Podsumowanie 14 dni"),
)
ROSTER_EMPTY = "Brak zajęć w dniu {day}."
ROSTER_CLASS = "{time} {group}"
ROSTER_PRESENT = "Obecni ({count}): {names}"
ROSTER_ABSENT = "Nieobecni ({count}): {names}"
ROSTER_MAKEUP = "Odrabiający ({count}): {names}"
ROSTER_OPEN = "Wolne miejsca: {count}"
RECENT_ABSENCES_EMPTY = "Brak zgłoszonych nieobecności na najbliższe 7 dni."
RECENT_ABSENCES_HEADER = "Nieobecności na najbliższe 7 dni:"
RECENT_ABSENCE_LINE = "{day} {time} {group}: {name}"
STATS = (
    "Najbliższe 14 dni:\n"
    "Zgłoszone nieobecności: {absences}\n"
    "Wolne miejsca: {open}\n"
    "Zajęte miejsca (odrabianie): {taken}"
)
ADDSLOT_HEADER = "Dodaj miejsce"
ADDSLOT_BODY = "Wybierz zajęcia, na których chcesz otworzyć dodatkowe miejsce."
ADDSLOT_BUTTON = "Wybierz zajęcia"
ADDSLOT_SECTION = "Twoje zajęcia"
ADDSLOT_EMPTY = "Nie masz zajęć w najbliższych 14 dniach."
ADDSLOT_CONFIRMED = "✔️ Dodano wolne miejsce: {day} {time}, {group}."
NOT_OWNER = "Te zajęcia nie należą do Twoich grup."
INVALID_OCCURRENCE = "Te zajęcia nie odbywają się w wybranym dniu."

INSTRUCTOR_ABSENCE_NOTICE = "Nieobecność: {name}, {day} {time} ({group}). Miejsce zostało zwolnione."

# ---------- Fallbacks ----------
UNKNOWN_SELECTION = "Nie udało się rozpoznać wyboru. Spróbuj ponownie."
GENERIC_ERROR = "Coś poszło nie tak. Spróbuj ponownie lub skontaktuj się ze studiem."
