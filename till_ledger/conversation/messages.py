"""
Chat texts and keyboards.

All user-facing French lives here so the engine only decides
which reply to send, not how it reads.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from till_ledger.formatting import format_amount, format_date_fr, format_short_date, month_label
from till_ledger.models.conversation import Action, Button, Reply, ReplyDocument
from till_ledger.models.ledger import LedgerRecord, MonthlyRecap, ValidationIssue


BUSY = "⏳ Doucement..."
STALE_ACTION = "⚠️ Cette action n'est plus disponible."
UNEXPECTED_ERROR = "❌ Une erreur inattendue est survenue. Retour au menu."
STORE_UNAVAILABLE = "❌ Impossible de lire la comptabilité pour le moment. Réessaie dans un instant."
SEND_FAILED = "❌ Erreur envoi. Réessaie."
NOTHING_UNDERSTOOD = (
    "🤔 Je n'ai trouvé aucun montant.\n"
    "Exemple : `CB 1000 ESP 500 TR 100 dépense 50 total déclaré 1200`"
)
EXTRACTION_FAILED = (
    "❌ Je n'ai pas réussi à lire ce message.\n"
    "Réessaie, ou tape les montants : `CB 1000 ESP 500 TR 100`"
)
MEDIA_TOO_LARGE = "❌ Fichier trop volumineux (maximum {limit} Mo)."
AUDIO_TOO_LONG = "❌ Message vocal trop long (maximum {limit} secondes)."
MEDIA_UNSUPPORTED = "❌ Ce type de fichier n'est pas pris en charge. Envoie une photo, un PDF ou un vocal."
MEDIA_NOT_EXPECTED = "📎 Pour enregistrer une recette, commence par ➕ Nouvelle recette."

HELP_TEXT = (
    "*Comment ça marche ?*\n\n"
    "1. ➕ *Nouvelle recette*\n"
    "2. Envoie les montants du jour, par texte, photo du ticket ou message vocal :\n"
    "`CB 1000 ESP 500 TR 100 dépense 50 total déclaré 1200`\n"
    "3. Vérifie le récapitulatif puis ✅ *Envoyer en compta*\n\n"
    "*Mots reconnus*\n"
    "• CB, carte : carte bancaire\n"
    "• ESP, espèces, cash : espèces\n"
    "• TR, ticket, resto : titres-restaurant\n"
    "• dépense, frais : dépenses\n"
    "• total déclaré, TR déclaré, dépense déclarée\n\n"
    "Sans « total déclaré », tout est déclaré.\n"
    "Pour corriger un seul montant pendant la saisie : `esp 450`"
)


# =============================================================================
# KEYBOARDS
# =============================================================================

def menu_button() -> Button:
    return Button(label="🏠 Menu principal", action=Action.MAIN_MENU)


def main_menu_keyboard() -> list[list[Button]]:
    return [
        [Button(label="➕ Nouvelle recette", action=Action.NEW_ENTRY)],
        [
            Button(label="📊 Récap du mois", action=Action.MONTH_RECAP, argument="0"),
            Button(label="📊 Mois dernier", action=Action.MONTH_RECAP, argument="-1"),
        ],
        [
            Button(label="✏️ Modifier un jour", action=Action.MODIFY_PAST),
            Button(label="🗑️ Supprimer un jour", action=Action.DELETE_PAST),
        ],
        [
            Button(label="📄 PDF comptable", action=Action.REPORT_MENU),
            Button(label="💰 Cumul non déclaré", action=Action.CUMULATIVE),
        ],
        [Button(label="❓ Aide", action=Action.HELP)],
    ]


def review_keyboard() -> list[list[Button]]:
    return [
        [Button(label="✅ Envoyer en compta !", action=Action.SEND)],
        [
            Button(label="📅 Date", action=Action.EDIT_DATE),
            Button(label="✏️ Montants", action=Action.EDIT_AMOUNTS),
        ],
        [menu_button()],
    ]


def date_confirmation_keyboard() -> list[list[Button]]:
    return [
        [
            Button(label="✅ Oui", action=Action.DATE_OK),
            Button(label="📅 Aujourd'hui", action=Action.DATE_TODAY),
            Button(label="✏️ Corriger", action=Action.DATE_FIX),
        ],
        [menu_button()],
    ]


def date_fix_keyboard(can_go_back: bool) -> list[list[Button]]:
    row = [Button(label="📅 Aujourd'hui", action=Action.DATE_TODAY)]
    if can_go_back:
        row.append(Button(label="↩️ Retour", action=Action.BACK_TO_REVIEW))
    return [row, [menu_button()]]


def warnings_keyboard() -> list[list[Button]]:
    return [
        [
            Button(label="✅ Continuer quand même", action=Action.CONTINUE_ANYWAY),
            Button(label="✏️ Corriger", action=Action.EDIT_AMOUNTS),
        ],
        [menu_button()],
    ]


def overwrite_keyboard() -> list[list[Button]]:
    return [
        [
            Button(label="♻️ Remplacer", action=Action.REPLACE),
            Button(label="❌ Annuler", action=Action.CANCEL_OVERWRITE),
        ],
    ]


def day_picker_keyboard(days: list[date], action: Action) -> list[list[Button]]:
    buttons = [
        Button(label=format_short_date(day), action=action, argument=day.isoformat())
        for day in days
    ]
    rows = [buttons[i:i + 2] for i in range(0, len(buttons), 2)]
    rows.append([menu_button()])
    return rows


def report_menu_keyboard(current: str, previous: str) -> list[list[Button]]:
    return [
        [
            Button(label=f"📄 {current}", action=Action.REPORT, argument="0"),
            Button(label=f"📄 {previous}", action=Action.REPORT, argument="-1"),
        ],
        [menu_button()],
    ]


def after_save_keyboard() -> list[list[Button]]:
    return [
        [Button(label="➕ Nouvelle recette", action=Action.NEW_ENTRY)],
        [menu_button()],
    ]


# =============================================================================
# REPLIES
# =============================================================================

def main_menu(prefix: Optional[str] = None) -> Reply:
    text = "🏠 *Menu principal*\nQue veux-tu faire ?"
    if prefix:
        text = f"{prefix}\n\n{text}"
    return Reply(text=text, keyboard=main_menu_keyboard())


def welcome() -> Reply:
    return main_menu("👋 Bonjour ! Je tiens la compta de ta caisse.")


def help_reply() -> Reply:
    return Reply(text=HELP_TEXT, keyboard=[[Button(label="➕ Nouvelle recette", action=Action.NEW_ENTRY)], [menu_button()]])


def stale_action() -> Reply:
    return main_menu(STALE_ACTION)


def collect_prompt(entry_date: date) -> Reply:
    return Reply(
        text=(
            f"📝 *Nouvelle recette* ({format_date_fr(entry_date)})\n\n"
            "Envoie les montants par texte, photo du ticket ou message vocal.\n"
            "Exemple : `CB 1000 ESP 500 TR 100 dépense 50 total déclaré 1200`"
        ),
        keyboard=[[menu_button()]],
    )


def record_lines(record: LedgerRecord) -> list[str]:
    """Declared split first, actual figures underneath."""
    return [
        "*Déclaré*",
        f"💳 CB : {format_amount(record.card_declared)}",
        f"💵 Espèces : {format_amount(record.cash_declared)}",
        f"🎫 TR : {format_amount(record.meal_voucher_declared)}",
        f"🧾 Dépenses : {format_amount(record.expense_declared)}",
        f"*Total déclaré : {format_amount(record.total_declared)}*",
        "",
        "*Réel*",
        (
            f"CB {format_amount(record.card_actual)} · "
            f"ESP {format_amount(record.cash_actual)} · "
            f"TR {format_amount(record.meal_voucher_actual)} · "
            f"Dép. {format_amount(record.expense_actual)}"
        ),
        f"Total réel : {format_amount(record.total_actual)}",
        f"Non déclaré : {format_amount(record.undeclared_amount)}",
    ]


def review(record: LedgerRecord, warnings: Optional[list[ValidationIssue]] = None) -> Reply:
    lines = [f"📋 *Récapitulatif du {format_date_fr(record.entry_date)}*", ""]
    lines.extend(record_lines(record))
    if warnings:
        lines.append("")
        lines.extend(f"⚠️ {issue.message}" for issue in warnings)
    return Reply(text="\n".join(lines), keyboard=review_keyboard())


def validation_errors(summary: str) -> Reply:
    return Reply(
        text=f"{summary}\n\nRenvoie les montants corrigés.",
        keyboard=[[menu_button()]],
    )


def warnings_prompt(issues: list[ValidationIssue]) -> Reply:
    lines = ["⚠️ *À vérifier :*"]
    lines.extend(f"• {issue.message}" for issue in issues)
    lines.append("")
    lines.append("Tu confirmes ces montants ?")
    return Reply(text="\n".join(lines), keyboard=warnings_keyboard())


def date_confirmation(
    entry_date: date,
    today: date,
    relative_label: Optional[str] = None,
) -> Reply:
    if relative_label:
        text = f"📅 « {relative_label} » = *{format_date_fr(entry_date)}*. C'est bien ça ?"
    elif entry_date > today:
        text = (
            f"🔮 *Date future* : {format_date_fr(entry_date)}.\n"
            "C'est bien la bonne date ?"
        )
    else:
        text = (
            f"⏪ *Date passée* : {format_date_fr(entry_date)}.\n"
            "C'est bien la bonne date ?"
        )
    return Reply(text=text, keyboard=date_confirmation_keyboard())


def date_fix_prompt(can_go_back: bool, issues: Optional[list[ValidationIssue]] = None) -> Reply:
    lines = []
    if issues:
        for issue in issues:
            lines.append(f"❌ {issue.message}")
            if issue.suggested_fix:
                lines.append(f"💡 {issue.suggested_fix}")
        lines.append("")
    lines.append("📅 Quelle date ? (ex : `12/06`, `12/06/2025`, `hier`)")
    return Reply(text="\n".join(lines), keyboard=date_fix_keyboard(can_go_back))


def modify_prompt(record: LedgerRecord) -> Reply:
    lines = [f"✏️ *Modification du {format_date_fr(record.entry_date)}*", ""]
    lines.extend(record_lines(record))
    lines.append("")
    lines.append("Envoie seulement ce qui change, ex : `esp 450` ou `total déclaré 1100`")
    return Reply(
        text="\n".join(lines),
        keyboard=[
            [Button(label="↩️ Retour au récap", action=Action.BACK_TO_REVIEW)],
            [menu_button()],
        ],
    )


def overwrite_prompt(existing: LedgerRecord, new: LedgerRecord) -> Reply:
    return Reply(
        text=(
            f"⚠️ *Il y a déjà une recette le {format_date_fr(new.entry_date)}*\n\n"
            f"Enregistrée : total déclaré {format_amount(existing.total_declared)} "
            f"(réel {format_amount(existing.total_actual)})\n"
            f"Nouvelle : total déclaré {format_amount(new.total_declared)} "
            f"(réel {format_amount(new.total_actual)})\n\n"
            "Remplacer l'ancienne saisie ?"
        ),
        keyboard=overwrite_keyboard(),
    )


def overwrite_cancelled() -> Reply:
    return main_menu("👌 Annulé, la recette enregistrée n'a pas été modifiée.")


def saved(record: LedgerRecord) -> Reply:
    return Reply(
        text=(
            f"✅ *Envoyé en compta !*\n"
            f"{format_date_fr(record.entry_date)} : "
            f"total déclaré {format_amount(record.total_declared)}"
        ),
        keyboard=after_save_keyboard(),
    )


def send_failed(retry_action: Action) -> Reply:
    return Reply(
        text=SEND_FAILED,
        keyboard=[
            [Button(label="🔁 Réessayer", action=retry_action)],
            [menu_button()],
        ],
    )


def day_picker(days: list[date], action: Action, title: str) -> Reply:
    return Reply(text=title, keyboard=day_picker_keyboard(days, action))


def no_record_for_day(day: date) -> Reply:
    return Reply(
        text=f"📭 Aucune recette le {format_date_fr(day)}.",
        keyboard=[
            [Button(label="➕ Saisir ce jour", action=Action.NEW_ENTRY, argument=day.isoformat())],
            [menu_button()],
        ],
    )


def delete_confirmation(record: LedgerRecord) -> Reply:
    lines = [f"🗑️ *Supprimer la recette du {format_date_fr(record.entry_date)} ?*", ""]
    lines.extend(record_lines(record))
    return Reply(
        text="\n".join(lines),
        keyboard=[
            [Button(
                label="🗑️ Oui, supprimer",
                action=Action.CONFIRM_DELETE,
                argument=record.entry_date.isoformat(),
            )],
            [menu_button()],
        ],
    )


def deleted(day: date) -> Reply:
    return main_menu(f"🗑️ Recette du {format_date_fr(day)} supprimée.")


def month_recap(recap: MonthlyRecap) -> Reply:
    label = month_label(recap.year, recap.month)
    if recap.is_empty:
        return Reply(text=f"📭 Aucune donnée pour {label}.", keyboard=[[menu_button()]])

    lines = [
        f"📊 *Récap {label}*",
        f"Jours remplis : {recap.days_filled}",
        "",
        "*Réel*",
        f"💳 CB : {format_amount(recap.card_actual)}",
        f"💵 Espèces : {format_amount(recap.cash_actual)}",
        f"🎫 TR : {format_amount(recap.meal_voucher_actual)}",
        f"🧾 Dépenses : {format_amount(recap.expense_actual)}",
        f"*Total réel : {format_amount(recap.total_actual)}*",
        "",
        f"*Total déclaré : {format_amount(recap.total_declared)}*",
        f"Non déclaré : {format_amount(recap.total_undeclared)}",
    ]
    return Reply(text="\n".join(lines), keyboard=[[menu_button()]])


def cumulative(year: int, month: int, amount: Decimal) -> Reply:
    return Reply(
        text=f"💰 *Cumul non déclaré {month_label(year, month)}* : {format_amount(amount)}",
        keyboard=[[menu_button()]],
    )


def report_menu(current: str, previous: str) -> Reply:
    return Reply(text="📄 Quel mois ?", keyboard=report_menu_keyboard(current, previous))


def report_document(document: ReplyDocument, recap: MonthlyRecap) -> Reply:
    return Reply(
        text=(
            f"📄 Récapitulatif comptable {month_label(recap.year, recap.month)} "
            f"({recap.days_filled} jours)"
        ),
        keyboard=[[menu_button()]],
        document=document,
    )


def no_report_data(year: int, month: int) -> Reply:
    return Reply(text=f"📭 Aucune donnée pour {month_label(year, month)}.", keyboard=[[menu_button()]])
